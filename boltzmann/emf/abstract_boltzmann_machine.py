# -*- coding: utf-8 -*-
# Copyright (C) 2025-present Beijing QBoson Quantum Technology Co., Ltd.
#
# SPDX-License-Identifier: Apache-2.0
"""Abstract base class for bipartite Boltzmann Machines."""
import torch


class AbstractBoltzmannMachine(torch.nn.Module):
    """Abstract base class for bipartite Boltzmann Machines.

    All sample matrices are laid out column-wise: a visible matrix has shape
    ``(num_visible, num_samples)`` and a hidden matrix ``(num_hidden, num_samples)``.
    Subclasses provide the two conditional probabilities; sampling and Markov
    chains are built on top of them here.

    Args:
        device (torch.device, optional): Device for tensor construction.
            If ``None``, uses CPU.
        dtype (torch.dtype): Floating point type of every buffer.
    """

    def __init__(self, device=None, dtype=torch.float64) -> None:
        super().__init__()
        self.device = device if device is not None else torch.device("cpu")
        self.dtype = dtype

    def to(self, *args, **kwargs):
        """Moves and/or casts the model, keeping ``device`` and ``dtype`` in sync.

        Accepts the same arguments as :meth:`torch.nn.Module.to`.

        Returns:
            AbstractBoltzmannMachine: The model on the target device.
        """
        device, dtype, _, _ = torch._C._nn._parse_to(*args, **kwargs)
        if device is not None:
            self.device = device
        if dtype is not None:
            self.dtype = dtype
        return super().to(*args, **kwargs)

    def as_tensor(self, data) -> torch.Tensor:
        """Converts array-like data to a tensor with the model's dtype and device."""
        return torch.as_tensor(data, dtype=self.dtype, device=self.device)

    def condprob_hid(self, vis: torch.Tensor) -> torch.Tensor:
        """Computes p(h=1|v).

        Raises:
            NotImplementedError: If not implemented in subclass.
        """
        raise NotImplementedError("Subclasses must implement condprob_hid method")

    def condprob_vis(self, hid: torch.Tensor) -> torch.Tensor:
        """Computes p(v=1|h).

        Raises:
            NotImplementedError: If not implemented in subclass.
        """
        raise NotImplementedError("Subclasses must implement condprob_vis method")

    def sample_hiddens(self, vis: torch.Tensor):
        """Draws binary hidden states given visible states.

        Args:
            vis (torch.Tensor): Visible matrix, shape (num_visible, num_samples).

        Returns:
            tuple[torch.Tensor, torch.Tensor]: Bernoulli samples and their means.
        """
        means = self.condprob_hid(vis)
        return torch.bernoulli(means), means

    def sample_visibles(self, hid: torch.Tensor):
        """Draws binary visible states given hidden states.

        Args:
            hid (torch.Tensor): Hidden matrix, shape (num_hidden, num_samples).

        Returns:
            tuple[torch.Tensor, torch.Tensor]: Bernoulli samples and their means.
        """
        means = self.condprob_vis(hid)
        return torch.bernoulli(means), means

    def mcmc(self, init: torch.Tensor, iterations: int = 1, start_mode: str = "visible"):
        """Runs block Gibbs sampling chains, one chain per column of ``init``.

        With ``start_mode="hidden"`` every iteration draws v|h then h|v, so the
        returned hidden means are conditioned on the returned visible samples.
        With ``start_mode="visible"`` every iteration draws h|v then v|h.

        Args:
            init (torch.Tensor): Starting states of the layer named by ``start_mode``.
            iterations (int): Number of Gibbs steps.
            start_mode (str): Either ``"visible"`` or ``"hidden"``.

        Returns:
            tuple: ``(vis_samples, vis_means, hid_samples, hid_means)`` of the
            last step.
        """
        if iterations < 1:
            raise ValueError(f"iterations must be >= 1, got {iterations}")
        if start_mode == "hidden":
            hid_samples = hid_means = init.clone()
            for _ in range(iterations):
                vis_samples, vis_means = self.sample_visibles(hid_samples)
                hid_samples, hid_means = self.sample_hiddens(vis_samples)
        elif start_mode == "visible":
            vis_samples = vis_means = init.clone()
            for _ in range(iterations):
                hid_samples, hid_means = self.sample_hiddens(vis_samples)
                vis_samples, vis_means = self.sample_visibles(hid_samples)
        else:
            raise ValueError(
                f"start_mode must be 'visible' or 'hidden', got {start_mode!r}"
            )
        return vis_samples, vis_means, hid_samples, hid_means

    def free_energy(self, vis: torch.Tensor) -> torch.Tensor:
        """Free energy of each visible column.

        Raises:
            NotImplementedError: If not implemented in subclass.
        """
        raise NotImplementedError("Subclasses must implement free_energy method")
