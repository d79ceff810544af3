"""Integration tests: network stepping under every execution strategy.

A nine-neuron network with a recurrent self-loop, a two-neuron cycle and
feed-forward fan-out is stepped for six steps, with an output injected
midway. The final outputs are the same under every strategy.

Success Criteria:
- Identical outputs for sequential, thread-pool and accelerator strategies
- Synapse effects reach post-synaptic outputs exactly one step later
- No host/device transfers while stepping without reads
"""

import logging

import pytest
import torch

from neurovec.config import CollectionConfig, NetworkConfig
from neurovec.core.execution import ExecutionMode
from neurovec.core.network import Network
from neurovec.errors import ConfigurationError, InconsistentExecutionStrategyError, InvalidArgumentError
from neurovec.models.neurons import LinearNeuronCollection
from neurovec.models.synapses import FixedSynapseCollection

WIRING = [
    (0, 2, 1.0),
    (1, 2, 0.9),
    (1, 3, 1.0),
    (1, 4, 1.0),
    (3, 3, 0.5),
    (4, 5, 1.0),
    (5, 4, 1.0),
    (2, 6, 1.0),
    (3, 7, 1.0),
    (4, 8, 1.0),
]

EXPECTED = [0.0, 0.0, 0.0, 0.03125, 0.0, 1.0, 0.0, 0.0625, 1.0]


class HostOnlyNeuronCollection(LinearNeuronCollection):
    accelerator_capable = False


class AcceleratorFailingNeuronCollection(LinearNeuronCollection):
    def update(self, buf, start, stop):
        if self.execution_mode.is_accelerated:
            raise RuntimeError("kernel launch failed")
        super().update(buf, start, stop)


def build_network(collection_config=None, network_config=None, neuron_type=LinearNeuronCollection):
    neurons = neuron_type(9, collection_config)
    synapses = FixedSynapseCollection(10, collection_config)
    network = Network(neurons, synapses, network_config)
    for index, (pre, post, efficacy) in enumerate(WIRING):
        synapses.set_pre_and_post_neurons(index, pre, post)
        synapses.set_efficacy(index, efficacy)
    return network


def run_scenario(network):
    neurons = network.neurons
    neurons.set_output(0, 1.0)
    neurons.set_output(1, 1.0)
    for step in range(6):
        if step == 3:
            neurons.set_output(0, 1.0)
        network.step()
    return neurons.get_outputs().tolist()


STRATEGIES = [
    (None, "sequential"),
    ("thread_pool_config", "thread_pool"),
    ("host_mirror_config", "accelerator"),
    ("cuda_config", "accelerator"),
]


@pytest.fixture(params=STRATEGIES, ids=["sequential", "thread_pool", "accelerator", "cuda"])
def strategy_network(request):
    fixture_name, mode = request.param
    config = request.getfixturevalue(fixture_name) if fixture_name else None
    network = build_network(config, NetworkConfig(preferred_execution_mode=mode))
    yield network
    network.dispose()


@pytest.mark.integration
class TestScenario:
    def test_final_outputs(self, strategy_network):
        outputs = run_scenario(strategy_network)
        assert outputs == pytest.approx(EXPECTED)
        assert strategy_network.step_count == 6

    def test_one_step_latency(self, strategy_network):
        neurons = strategy_network.neurons
        neurons.set_output(0, 1.0)

        strategy_network.step()
        # Synapse 0→2 saw the injected output, neuron 2 produced it
        assert neurons.get_output(2) == pytest.approx(1.0)
        assert neurons.get_output(6) == 0.0

        strategy_network.step()
        assert neurons.get_output(6) == pytest.approx(1.0)
        assert neurons.get_output(2) == 0.0

    def test_mixed_strategies_copy_explicitly(self, host_mirror_config):
        network = build_network(
            host_mirror_config,
            NetworkConfig(minimum_size_for_thread_pool=10, minimum_size_for_accelerator=10),
        )
        assert network.neurons.execution_mode is ExecutionMode.SEQUENTIAL
        assert network.synapses.execution_mode is ExecutionMode.ACCELERATOR

        assert run_scenario(network) == pytest.approx(EXPECTED)

    @pytest.mark.parametrize("mode", ["sequential", "thread_pool", "accelerator"])
    def test_synapses_deliver_before_neurons_consume(self, host_mirror_config, mode):
        neurons = LinearNeuronCollection(2, host_mirror_config)
        synapses = FixedSynapseCollection(1, host_mirror_config)
        network = Network(neurons, synapses, NetworkConfig(preferred_execution_mode=mode))
        synapses.set_pre_and_post_neurons(0, 0, 1)
        synapses.set_efficacy(0, 0.5)
        neurons.set_output(0, 1.0)

        assert neurons.get_input(1) == 0.0

        synapses.step()
        assert neurons.get_input(1) == pytest.approx(0.5)
        assert neurons.get_output(1) == 0.0

        neurons.step()
        assert neurons.get_output(1) == pytest.approx(0.5)
        assert neurons.get_input(1) == 0.0
        network.dispose()

    def test_reset_replays_identically(self):
        network = build_network()
        first = run_scenario(network)
        network.reset()
        assert network.step_count == 0
        assert run_scenario(network) == first


@pytest.mark.integration
class TestTransfers:
    def test_stepping_without_reads_does_not_transfer(self, host_mirror_config):
        network = build_network(
            host_mirror_config, NetworkConfig(preferred_execution_mode="accelerator")
        )
        network.neurons.set_output(0, 1.0)
        network.run(1)
        for collection in network.collections:
            collection.buffers.reset_transfer_counts()

        network.run(5)

        assert network.neurons.transfer_counts == {"to_device": 0, "to_host": 0}
        assert network.synapses.transfer_counts == {"to_device": 0, "to_host": 0}

        network.neurons.get_outputs()
        assert network.neurons.transfer_counts == {"to_device": 0, "to_host": 2}

    def test_host_write_pushed_once(self, host_mirror_config):
        network = build_network(
            host_mirror_config, NetworkConfig(preferred_execution_mode="accelerator")
        )
        network.run(1)
        network.neurons.set_bias(3, 0.5)
        network.neurons.buffers.reset_transfer_counts()

        network.run(3)

        assert network.neurons.transfer_counts["to_device"] == 1


@pytest.mark.integration
class TestStrategySelection:
    def test_default_thresholds_pick_sequential(self):
        network = build_network()
        assert network.neurons.execution_mode is ExecutionMode.SEQUENTIAL
        assert network.synapses.execution_mode is ExecutionMode.SEQUENTIAL

    def test_large_collections_stay_sequential_by_default(self, host_mirror_config):
        network = Network(
            LinearNeuronCollection(10000, host_mirror_config),
            FixedSynapseCollection(10, host_mirror_config),
        )
        assert network.neurons.execution_mode is ExecutionMode.SEQUENTIAL
        assert network.neurons.buffer_device is None

    def test_thresholds_reselect(self, thread_pool_config):
        network = build_network(thread_pool_config)
        network.set_minimum_size_for_thread_pool(5)
        assert network.neurons.execution_mode is ExecutionMode.THREAD_POOL

        network.set_minimum_size_for_thread_pool(float("inf"))
        assert network.neurons.execution_mode is ExecutionMode.SEQUENTIAL
        network.dispose()

    def test_inconsistent_accelerator_raises(self, host_mirror_config):
        with pytest.raises(InconsistentExecutionStrategyError, match="requested for both"):
            build_network(
                host_mirror_config,
                NetworkConfig(preferred_execution_mode="accelerator"),
                neuron_type=HostOnlyNeuronCollection,
            )

    @pytest.mark.skipif(torch.cuda.is_available(), reason="needs a machine without CUDA")
    def test_unavailable_accelerator_falls_back_for_both(self, caplog):
        with caplog.at_level(logging.WARNING):
            network = build_network(network_config=NetworkConfig(preferred_execution_mode="gpu"))

        assert network.neurons.execution_mode is ExecutionMode.SEQUENTIAL
        assert network.synapses.execution_mode is ExecutionMode.SEQUENTIAL
        assert run_scenario(network) == pytest.approx(EXPECTED)

    def test_trial_failure_falls_back(self, host_mirror_config, caplog):
        neurons = AcceleratorFailingNeuronCollection(12, host_mirror_config)
        synapses = FixedSynapseCollection(10, host_mirror_config)

        with caplog.at_level(logging.WARNING):
            network = Network(
                neurons,
                synapses,
                NetworkConfig(minimum_size_for_thread_pool=11, minimum_size_for_accelerator=11),
            )

        assert neurons.requested_execution_mode is ExecutionMode.ACCELERATOR
        assert neurons.execution_mode is ExecutionMode.SEQUENTIAL
        assert synapses.execution_mode is ExecutionMode.SEQUENTIAL
        assert network.step_count == 0
        assert "falling back" in caplog.text

    def test_trial_step_leaves_no_trace(self, host_mirror_config):
        network = build_network(
            host_mirror_config, NetworkConfig(preferred_execution_mode="accelerator")
        )
        network.neurons.set_output(0, 1.0)
        network.set_preferred_execution_mode("sequential")
        network.set_preferred_execution_mode("accelerator")

        assert network.step_count == 0
        assert network.neurons.get_output(0) == 1.0
        assert network.neurons.get_output(2) == 0.0


@pytest.mark.integration
class TestNetworkApi:
    def test_clock(self):
        network = build_network()
        network.run(5)
        assert network.step_count == 5
        assert network.time == pytest.approx(0.005)
        assert network.step_period == pytest.approx(0.001)

        network.set_time_resolution(100)
        assert network.step_count == 0
        assert network.step_period == pytest.approx(0.01)

    def test_invalid_arguments(self):
        network = build_network()
        with pytest.raises(InvalidArgumentError):
            network.run(-1)
        with pytest.raises(ConfigurationError):
            network.set_time_resolution(0)
        with pytest.raises(ConfigurationError):
            network.set_minimum_size_for_accelerator(-5)

    def test_rebinding_neurons(self):
        network = build_network()
        old = network.neurons
        replacement = LinearNeuronCollection(9)

        network.set_neurons(replacement)

        assert old.network is None
        assert network.synapses.neurons is replacement
        assert run_scenario(network) == pytest.approx(EXPECTED)

    def test_rebinding_to_smaller_collection_rejected(self):
        network = build_network()
        old = network.neurons
        smaller = LinearNeuronCollection(3)

        with pytest.raises(InvalidArgumentError, match="neuron indices"):
            network.set_neurons(smaller)

        assert network.neurons is old
        assert old.network is network
        assert smaller.network is None
        assert network.synapses.neurons is old
        assert run_scenario(network) == pytest.approx(EXPECTED)

    def test_rebinding_to_out_of_range_synapses_rejected(self):
        network = build_network()
        old = network.synapses
        stray = FixedSynapseCollection(1)
        stray.set_pre_and_post_neurons(0, 0, 20)

        with pytest.raises(InvalidArgumentError, match="post-synaptic neuron indices"):
            network.set_synapses(stray)

        assert network.synapses is old
        assert old.network is network
        assert stray.network is None
        assert run_scenario(network) == pytest.approx(EXPECTED)

    def test_context_manager_releases_devices(self, host_mirror_config):
        with build_network(
            host_mirror_config, NetworkConfig(preferred_execution_mode="accelerator")
        ) as network:
            network.run(2)
            assert network.neurons.buffer_device is not None
        assert network.neurons.buffer_device is None
        assert network.synapses.buffer_device is None

    def test_repr(self):
        assert "step=0" in repr(build_network())

    def test_seeded_config(self):
        build_network(network_config=NetworkConfig(seed=7))
        first = torch.rand(3)
        build_network(network_config=NetworkConfig(seed=7))
        assert torch.equal(torch.rand(3), first)


@pytest.mark.integration
class TestCollectionConfigShared:
    def test_float32_network(self):
        config = CollectionConfig(dtype="float32")
        network = build_network(config)
        assert network.neurons.get_outputs().dtype == torch.float32
        assert run_scenario(network) == pytest.approx(EXPECTED)
