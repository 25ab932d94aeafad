"""Small numpy function approximators for the learned (non-tabular) methods.

Networks are plain multilayer perceptrons with an explicit forward cache and a
hand-written backward pass. ``backward`` returns parameter gradients without
applying them, plus the gradient with respect to the network input, which the
actor-critic learners need to push critic gradients into their actors.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

_ACTIVATIONS = {"relu", "tanh", "identity"}


def softmax(logits: np.ndarray, temperature: float = 1.0) -> np.ndarray:
    """Numerically stable softmax over the last axis."""
    scaled = np.asarray(logits, dtype=np.float64) / temperature
    shifted = scaled - np.max(scaled, axis=-1, keepdims=True)
    exp = np.exp(shifted)
    return exp / np.sum(exp, axis=-1, keepdims=True)


def _activate(z: np.ndarray, kind: str) -> np.ndarray:
    if kind == "relu":
        return np.maximum(0.0, z)
    if kind == "tanh":
        return np.tanh(z)
    return z


def _activation_grad(z: np.ndarray, out: np.ndarray, kind: str) -> np.ndarray:
    if kind == "relu":
        return (z > 0.0).astype(np.float64)
    if kind == "tanh":
        return 1.0 - out**2
    return np.ones_like(z)


@dataclass
class ForwardCache:
    """Layer inputs, pre-activations and outputs from one forward pass."""

    inputs: list[np.ndarray]
    pre_activations: list[np.ndarray]
    outputs: list[np.ndarray]


class MLP:
    """Dense network: ``input -> hidden... -> output``.

    Args:
        sizes: Layer widths including input and output, e.g. ``(4, 64, 64, 2)``.
        hidden_activation: ``"relu"`` or ``"tanh"``.
        output_activation: ``"identity"`` or ``"tanh"``.
        rng: Generator used for weight initialization.
        output_scale: Multiplier on the final layer's initial weights; small
            values keep initial policies near uniform.
    """

    def __init__(
        self,
        sizes: tuple[int, ...],
        rng: np.random.Generator,
        hidden_activation: str = "relu",
        output_activation: str = "identity",
        output_scale: float = 1.0,
    ) -> None:
        if len(sizes) < 2:
            raise ValueError("An MLP needs at least input and output sizes.")
        if hidden_activation not in _ACTIVATIONS or output_activation not in _ACTIVATIONS:
            raise ValueError(f"Activations must be one of {sorted(_ACTIVATIONS)}.")
        self.sizes = tuple(int(size) for size in sizes)
        self.hidden_activation = hidden_activation
        self.output_activation = output_activation
        self.weights: list[np.ndarray] = []
        self.biases: list[np.ndarray] = []
        n_layers = len(self.sizes) - 1
        for idx in range(n_layers):
            fan_in, fan_out = self.sizes[idx], self.sizes[idx + 1]
            # Xavier/He-style scale.
            scale = np.sqrt(2.0 / (fan_in + fan_out))
            if idx == n_layers - 1:
                scale *= output_scale
            self.weights.append(rng.standard_normal((fan_in, fan_out)) * scale)
            self.biases.append(np.zeros(fan_out))

    @property
    def params(self) -> list[np.ndarray]:
        """Parameter arrays in a fixed order: ``W0, b0, W1, b1, ...``."""
        flat: list[np.ndarray] = []
        for weight, bias in zip(self.weights, self.biases):
            flat.extend((weight, bias))
        return flat

    def _activation_for(self, layer_idx: int) -> str:
        if layer_idx == len(self.weights) - 1:
            return self.output_activation
        return self.hidden_activation

    def forward(self, x: np.ndarray) -> tuple[np.ndarray, ForwardCache]:
        """Run a batch ``(batch, input_dim)`` through the network."""
        h = np.atleast_2d(np.asarray(x, dtype=np.float64))
        cache = ForwardCache(inputs=[], pre_activations=[], outputs=[])
        for idx, (weight, bias) in enumerate(zip(self.weights, self.biases)):
            cache.inputs.append(h)
            z = h @ weight + bias
            h = _activate(z, self._activation_for(idx))
            cache.pre_activations.append(z)
            cache.outputs.append(h)
        return h, cache

    def predict(self, x: np.ndarray) -> np.ndarray:
        out, _ = self.forward(x)
        return out

    def backward(
        self, grad_output: np.ndarray, cache: ForwardCache
    ) -> tuple[list[np.ndarray], np.ndarray]:
        """Backpropagate ``dL/d(output)``.

        Returns:
            Parameter gradients in :attr:`params` order and ``dL/d(input)``.
        """
        grad = np.asarray(grad_output, dtype=np.float64)
        grads: list[np.ndarray] = [np.empty(0)] * (2 * len(self.weights))
        for idx in range(len(self.weights) - 1, -1, -1):
            kind = self._activation_for(idx)
            grad = grad * _activation_grad(
                cache.pre_activations[idx], cache.outputs[idx], kind
            )
            grads[2 * idx] = cache.inputs[idx].T @ grad
            grads[2 * idx + 1] = np.sum(grad, axis=0)
            grad = grad @ self.weights[idx].T
        return grads, grad

    def copy_from(self, other: "MLP") -> None:
        """Hard update: copy all parameters from ``other``."""
        for target, source in zip(self.params, other.params):
            target[...] = source

    def clone(self) -> "MLP":
        twin = object.__new__(MLP)
        twin.sizes = self.sizes
        twin.hidden_activation = self.hidden_activation
        twin.output_activation = self.output_activation
        twin.weights = [weight.copy() for weight in self.weights]
        twin.biases = [bias.copy() for bias in self.biases]
        return twin


def soft_update(target: MLP, source: MLP, tau: float) -> None:
    """Exponential moving average ``target <- tau*source + (1-tau)*target``."""
    for target_param, source_param in zip(target.params, source.params):
        target_param *= 1.0 - tau
        target_param += tau * source_param


class Adam:
    """Adaptive Moment Estimation over a fixed list of parameter arrays.

    Parameters are updated in place, so the optimizer must be created for the
    exact arrays returned by :attr:`MLP.params`.
    """

    def __init__(
        self,
        params: list[np.ndarray],
        lr: float = 1e-3,
        beta1: float = 0.9,
        beta2: float = 0.999,
        eps: float = 1e-8,
    ) -> None:
        self.params = params
        self.lr = lr
        self.beta1 = beta1
        self.beta2 = beta2
        self.eps = eps
        self.m = [np.zeros_like(param) for param in params]
        self.v = [np.zeros_like(param) for param in params]
        self.t = 0

    def step(self, grads: list[np.ndarray]) -> None:
        """Apply one descent step for gradients of a loss to minimize."""
        self.t += 1
        bias1 = 1.0 - self.beta1**self.t
        bias2 = 1.0 - self.beta2**self.t
        for param, grad, m, v in zip(self.params, grads, self.m, self.v):
            m *= self.beta1
            m += (1.0 - self.beta1) * grad
            v *= self.beta2
            v += (1.0 - self.beta2) * grad**2
            param -= self.lr * (m / bias1) / (np.sqrt(v / bias2) + self.eps)


def hard_update(target: MLP, source: MLP) -> None:
    target.copy_from(source)
