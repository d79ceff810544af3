"""
Tests for the component collection base: sizes, populated range, execution
strategies, transfers and snapshots.

Author: Neurovec Project
"""

import logging

import pytest
import torch

from neurovec.core.buffers import Freshness
from neurovec.core.execution import ExecutionMode
from neurovec.errors import ComponentError, InvalidArgumentError
from neurovec.models.neurons import LinearNeuronCollection
from neurovec.models.synapses import FixedSynapseCollection, Pfister2006SynapseCollection


class HostOnlyNeuronCollection(LinearNeuronCollection):
    accelerator_capable = False


class AcceleratorFailingNeuronCollection(LinearNeuronCollection):
    """Raises on the accelerator strategy, works everywhere else."""

    def update(self, buf, start, stop):
        if self.execution_mode.is_accelerated:
            raise RuntimeError("kernel launch failed")
        super().update(buf, start, stop)


@pytest.mark.unit
class TestSizes:
    def test_sizes(self):
        neurons = LinearNeuronCollection(9)
        assert neurons.size == 9
        assert len(neurons) == 9
        assert neurons.size_populated == 9
        assert neurons.size_rounded_for_dispatch == 16
        assert neurons.dtype == torch.float64

    def test_empty_collection(self):
        neurons = LinearNeuronCollection(0)
        neurons.step()
        assert neurons.get_outputs().numel() == 0

    def test_negative_size(self):
        with pytest.raises(InvalidArgumentError):
            LinearNeuronCollection(-1)

    def test_populated_size_bounds(self):
        neurons = LinearNeuronCollection(4)
        neurons.set_size_populated(0)
        neurons.set_size_populated(4)
        with pytest.raises(InvalidArgumentError, match="populated size"):
            neurons.set_size_populated(5)
        with pytest.raises(InvalidArgumentError):
            neurons.set_size_populated(-1)

    def test_index_errors(self):
        neurons = LinearNeuronCollection(3)
        with pytest.raises(InvalidArgumentError):
            neurons.get_output(3)
        with pytest.raises(InvalidArgumentError):
            neurons.set_output(-1, 1.0)
        with pytest.raises(InvalidArgumentError, match="does not fit"):
            neurons.set_outputs([1.0, 2.0], start=2)

    def test_only_populated_components_update(self):
        neurons = LinearNeuronCollection(4)
        neurons.set_biases([1.0, 1.0, 1.0, 1.0])
        neurons.set_size_populated(2)

        neurons.step()

        assert neurons.get_outputs().tolist() == [1.0, 1.0, 0.0, 0.0]
        assert neurons.dispatch_grid.global_size == 2


@pytest.mark.unit
class TestOutputs:
    def test_set_and_get(self):
        neurons = LinearNeuronCollection(3)
        neurons.set_output(1, 0.5)
        neurons.set_outputs([0.25, 0.75], start=1)
        assert neurons.get_output(1) == 0.25
        assert neurons.get_outputs().tolist() == [0.0, 0.25, 0.75]
        assert neurons.outputs_modified

    def test_reset_restores_default_output(self):
        neurons = LinearNeuronCollection(2)
        neurons.set_outputs([3.0, 4.0])
        neurons.reset()
        assert neurons.get_outputs().tolist() == [0.0, 0.0]

    def test_direct_writes_flagged(self, host_mirror_config):
        neurons = LinearNeuronCollection(2, host_mirror_config)
        neurons.set_execution_mode(ExecutionMode.ACCELERATOR)

        neurons.get_outputs()[0] = 7.0
        neurons.set_outputs_modified()

        assert neurons.buffers.freshness("outputs") is Freshness.HOST_FRESH
        neurons.buffers.ensure_device_fresh("outputs")
        assert neurons.buffers.kernel_tensor("outputs")[0] == 7.0


@pytest.mark.unit
class TestExecutionStrategy:
    def test_default_is_sequential(self):
        neurons = LinearNeuronCollection(3)
        assert neurons.execution_mode is ExecutionMode.SEQUENTIAL
        assert neurons.buffer_device is None

    def test_thread_pool_grid(self, thread_pool_config):
        neurons = LinearNeuronCollection(10, thread_pool_config)
        neurons.set_execution_mode("thread_pool")
        assert neurons.dispatch_grid.chunks() == [(0, 4), (4, 8), (8, 10)]

        neurons.set_biases(torch.arange(10.0))
        neurons.step()
        assert torch.equal(neurons.get_outputs(), torch.arange(10.0, dtype=torch.float64))
        neurons.dispose()

    def test_accelerator_with_host_mirror(self, host_mirror_config):
        neurons = LinearNeuronCollection(3, host_mirror_config)
        neurons.set_execution_mode(ExecutionMode.ACCELERATOR)

        assert neurons.execution_mode is ExecutionMode.ACCELERATOR
        assert neurons.buffer_device == torch.device("cpu")
        assert neurons.dispatch_grid.padded_size == 4

    def test_incapable_model_falls_back(self, host_mirror_config, caplog):
        neurons = HostOnlyNeuronCollection(3, host_mirror_config)
        with caplog.at_level(logging.WARNING):
            neurons.set_execution_mode(ExecutionMode.ACCELERATOR)

        assert neurons.requested_execution_mode is ExecutionMode.ACCELERATOR
        assert neurons.execution_mode is ExecutionMode.SEQUENTIAL
        assert "cannot run on the accelerator" in caplog.text

    @pytest.mark.skipif(torch.cuda.is_available(), reason="needs a machine without CUDA")
    def test_missing_device_falls_back(self, caplog):
        neurons = LinearNeuronCollection(3)
        with caplog.at_level(logging.WARNING):
            neurons.set_execution_mode("gpu")

        assert neurons.execution_mode is ExecutionMode.SEQUENTIAL
        assert "no accelerator device" in caplog.text

    def test_mode_switch_preserves_state(self, host_mirror_config):
        neurons = LinearNeuronCollection(3, host_mirror_config)
        neurons.set_biases([1.0, 2.0, 3.0])
        neurons.set_execution_mode(ExecutionMode.ACCELERATOR)
        neurons.step()
        assert neurons.outputs_stale

        neurons.set_execution_mode(ExecutionMode.SEQUENTIAL)

        assert neurons.buffer_device is None
        assert not neurons.outputs_stale
        assert neurons.get_outputs().tolist() == [1.0, 2.0, 3.0]

    def test_steps_without_reads_do_not_transfer(self, host_mirror_config):
        neurons = LinearNeuronCollection(3, host_mirror_config)
        neurons.set_execution_mode(ExecutionMode.ACCELERATOR)
        neurons.buffers.reset_transfer_counts()

        for _ in range(3):
            neurons.step()
        assert neurons.transfer_counts == {"to_device": 0, "to_host": 0}

        # outputs and spike flags
        neurons.get_outputs()
        assert neurons.transfer_counts == {"to_device": 0, "to_host": 2}

    def test_dispatch_error_propagates(self):
        class Broken(LinearNeuronCollection):
            def update(self, buf, start, stop):
                raise RuntimeError("broken")

        with pytest.raises(RuntimeError, match="broken"):
            Broken(2).step()

    def test_dispatch_error_falls_back_when_allowed(self, host_mirror_config, caplog):
        neurons = AcceleratorFailingNeuronCollection(2, host_mirror_config)
        neurons.set_execution_mode(ExecutionMode.ACCELERATOR)
        neurons.set_biases([1.0, 2.0])
        neurons.fallback_on_dispatch_error = True

        with caplog.at_level(logging.WARNING):
            neurons.step()

        assert neurons.execution_mode is ExecutionMode.SEQUENTIAL
        assert neurons.get_outputs().tolist() == [1.0, 2.0]
        assert "falling back" in caplog.text


@pytest.mark.unit
class TestStateVariables:
    def test_linear_has_none(self):
        assert LinearNeuronCollection(2).get_state_variable_names() == ()

    def test_fixed_synapse_efficacy_is_not_state(self):
        assert FixedSynapseCollection(2).get_state_variable_names() == ()

    def test_pfister_state(self):
        synapses = Pfister2006SynapseCollection(2)
        assert synapses.get_state_variable_names() == ("efficacy", "r1", "r2", "o1", "o2")
        assert synapses.get_state_variable_values(0) == (0.0, 0.0, 0.0, 0.0, 0.0)
        assert not synapses.state_variables_stale


@pytest.mark.unit
class TestSnapshots:
    def test_state_dict_roundtrip(self):
        neurons = LinearNeuronCollection(3)
        neurons.set_biases([0.5, 0.0, -0.5])
        neurons.step()
        state = neurons.state_dict()

        neurons.add_input(1, 4.0)
        neurons.set_size_populated(1)
        neurons.step()
        neurons.load_state_dict(state)

        assert neurons.get_outputs().tolist() == [0.5, 0.0, -0.5]
        assert neurons.get_inputs().tolist() == [0.0, 0.0, 0.0]
        assert neurons.size_populated == 3

    def test_state_dict_is_a_copy(self):
        neurons = LinearNeuronCollection(2)
        state = neurons.state_dict()
        state["outputs"][0] = 9.0
        assert neurons.get_output(0) == 0.0

    def test_shape_mismatch(self):
        state = LinearNeuronCollection(3).state_dict()
        with pytest.raises(ComponentError, match="LinearNeuronCollection"):
            LinearNeuronCollection(4).load_state_dict(state)


@pytest.mark.unit
class TestFactory:
    def test_create_collection(self, host_mirror_config):
        neurons = LinearNeuronCollection(3, host_mirror_config)
        other = neurons.create_collection(5)
        assert type(other) is LinearNeuronCollection
        assert other.size == 5
        assert other.config is host_mirror_config

    def test_repr(self):
        assert repr(LinearNeuronCollection(3)) == (
            "LinearNeuronCollection(size=3, populated=3, mode=SEQUENTIAL)"
        )
