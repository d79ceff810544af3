"""Reference neuron and synapse models built on the collection engine."""
