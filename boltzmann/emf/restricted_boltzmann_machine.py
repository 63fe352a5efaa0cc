# -*- coding: utf-8 -*-
# Copyright (C) 2025-present Beijing QBoson Quantum Technology Co., Ltd.
#
# SPDX-License-Identifier: Apache-2.0
"""Bernoulli-Bernoulli Restricted Boltzmann Machine with EMF/TAP support"""
import math

import numpy as np
import torch
import torch.nn.functional as F

from .abstract_boltzmann_machine import AbstractBoltzmannMachine
from .config import ApproxType

EPS = 1e-8


class BernoulliRBM(AbstractBoltzmannMachine):
    """Create a binary Restricted Boltzmann Machine.

    The model owns every buffer the training loop mutates:

    * ``W`` (num_hidden x num_visible), ``vbias``, ``hbias``;
    * ``W2 = W*W`` and ``W3 = W2*W``, ``None`` until a TAP approximation asks
      for them;
    * ``dW`` and ``dW_prev``, the current and previous weight steps;
    * ``persistent_chain_vis`` / ``persistent_chain_hid``, ``None`` until
      training initialises them.

    Args:
        num_visible (int): Number of visible nodes in the model.
        num_hidden (int): Number of hidden nodes in the model.
        vis_shape (tuple[int, ...], optional): Shape of one visible sample, used
            to reshape generated samples. Defaults to ``(num_visible,)``.
        sigma (float): Standard deviation of the initial weights.
        momentum (float): Fraction of the previous step added to each new step.
        train_data (array-like, optional): Training matrix (num_visible x
            num_samples). If given, the visible bias is initialised to the
            log-odds of the per-feature mean activation.
        device (torch.device, optional): Device to construct tensors.
        dtype (torch.dtype): Floating point type of the buffers.
    """

    def __init__(
        self,
        num_visible,
        num_hidden,
        vis_shape=None,
        sigma=0.01,
        momentum=0.0,
        train_data=None,
        device=None,
        dtype=torch.float64,
    ):
        super().__init__(device=device, dtype=dtype)
        self.num_visible = num_visible
        self.num_hidden = num_hidden
        self.vis_shape = tuple(vis_shape) if vis_shape is not None else (num_visible,)
        if math.prod(self.vis_shape) != num_visible:
            raise ValueError(
                f"vis_shape {self.vis_shape} does not hold {num_visible} visible units"
            )
        self.momentum = momentum

        factory = {"dtype": dtype, "device": self.device}
        self.register_buffer("W", torch.randn(num_hidden, num_visible, **factory) * sigma)
        self.register_buffer("W2", None)
        self.register_buffer("W3", None)
        self.register_buffer("hbias", torch.zeros(num_hidden, **factory))
        self.register_buffer("vbias", self._initial_vbias(train_data))
        self.register_buffer("dW", torch.zeros_like(self.W))
        self.register_buffer("dW_prev", torch.zeros_like(self.W))
        self.register_buffer("persistent_chain_vis", None)
        self.register_buffer("persistent_chain_hid", None)

    def _initial_vbias(self, train_data) -> torch.Tensor:
        if train_data is None:
            return torch.zeros(self.num_visible, dtype=self.dtype, device=self.device)
        mean_x = np.asarray(train_data, dtype=np.float64).mean(axis=1)
        if mean_x.shape != (self.num_visible,):
            raise ValueError(
                f"train_data has {mean_x.shape[0]} features, expected {self.num_visible}"
            )
        return self.as_tensor(-np.log(1.0 / np.clip(mean_x, 0.001, 0.999) - 1.0))

    def extra_repr(self) -> str:
        return (
            f"num_visible={self.num_visible}, num_hidden={self.num_hidden}, "
            f"vis_shape={self.vis_shape}, momentum={self.momentum}"
        )

    def condprob_hid(self, vis: torch.Tensor) -> torch.Tensor:
        """p(h=1|v) for each column of ``vis``."""
        return torch.sigmoid(self.W @ vis + self.hbias.unsqueeze(1))

    def condprob_vis(self, hid: torch.Tensor) -> torch.Tensor:
        """p(v=1|h) for each column of ``hid``."""
        return torch.sigmoid(self.W.t() @ hid + self.vbias.unsqueeze(1))

    def squared_weights(self) -> torch.Tensor:
        """Returns ``W2``, computing it first if it is absent."""
        if self.W2 is None:
            self.W2 = self.W * self.W
        return self.W2

    def cubed_weights(self) -> torch.Tensor:
        """Returns ``W3``, computing it (and ``W2``) first if absent."""
        if self.W3 is None:
            self.W3 = self.squared_weights() * self.W
        return self.W3

    def refresh_derived_weights(self, approx) -> None:
        """Recomputes the weight powers needed by ``approx`` from the current ``W``.

        Powers the approximation does not need are dropped, so a later lazy
        access recomputes them instead of reading a stale value.

        Mutates:
            ``W2``, ``W3``.
        """
        approx = ApproxType.parse(approx)
        self.W2 = self.W * self.W if approx.is_tap else None
        self.W3 = self.W2 * self.W if approx is ApproxType.TAP3 else None

    def _mean_field_hid(self, m_vis, m_hid, approx: ApproxType) -> torch.Tensor:
        field = self.W @ m_vis + self.hbias.unsqueeze(1)
        if approx.is_tap:
            var_vis = m_vis - m_vis * m_vis
            field = field - (m_hid - 0.5) * (self.squared_weights() @ var_vis)
            if approx is ApproxType.TAP3:
                skew_vis = var_vis * (0.5 - m_vis)
                field = field + (1.0 / 3.0 - 2.0 * (m_hid - m_hid * m_hid)) * (
                    self.cubed_weights() @ skew_vis
                )
        return torch.sigmoid(field)

    def _mean_field_vis(self, m_vis, m_hid, approx: ApproxType) -> torch.Tensor:
        field = self.W.t() @ m_hid + self.vbias.unsqueeze(1)
        if approx.is_tap:
            var_hid = m_hid - m_hid * m_hid
            field = field - (m_vis - 0.5) * (self.squared_weights().t() @ var_hid)
            if approx is ApproxType.TAP3:
                skew_hid = var_hid * (0.5 - m_hid)
                field = field + (1.0 / 3.0 - 2.0 * (m_vis - m_vis * m_vis)) * (
                    self.cubed_weights().t() @ skew_hid
                )
        return torch.sigmoid(field)

    def equilibrate(self, vis_init, hid_init, iterations=3, approx="tap2", damp=0.5):
        """Iterates the mean-field self-consistency equations.

        Each iteration updates the hidden magnetizations from the visible ones,
        then the visible magnetizations from the new hidden ones, mixing every
        update with the previous value: ``m <- damp*m + (1-damp)*m_new``.

        Args:
            vis_init (torch.Tensor): Starting visible magnetizations.
            hid_init (torch.Tensor): Starting hidden magnetizations.
            iterations (int): Number of fixed-point iterations.
            approx: ``"naive"``, ``"tap2"`` or ``"tap3"``.
            damp (float): Weight of the previous value in each update.

        Returns:
            tuple[torch.Tensor, torch.Tensor]: Visible and hidden magnetizations.
        """
        approx = ApproxType.parse(approx)
        if not approx.is_mean_field:
            raise ValueError(f"equilibrate needs a mean-field approximation, got {approx}")
        self.check_shapes(vis_init, hid_init)

        m_vis = vis_init.clone()
        m_hid = hid_init.clone()
        for _ in range(iterations):
            m_hid = damp * m_hid + (1.0 - damp) * self._mean_field_hid(m_vis, m_hid, approx)
            m_vis = damp * m_vis + (1.0 - damp) * self._mean_field_vis(m_vis, m_hid, approx)
        return m_vis, m_hid

    def check_shapes(self, vis=None, hid=None) -> None:
        """Raises ``ValueError`` unless the matrices fit this model's layers."""
        if vis is not None and (vis.dim() != 2 or vis.shape[0] != self.num_visible):
            raise ValueError(
                f"visible matrix of shape {tuple(vis.shape)} does not match "
                f"{self.num_visible} visible units"
            )
        if hid is not None and (hid.dim() != 2 or hid.shape[0] != self.num_hidden):
            raise ValueError(
                f"hidden matrix of shape {tuple(hid.shape)} does not match "
                f"{self.num_hidden} hidden units"
            )
        if vis is not None and hid is not None and vis.shape[1] != hid.shape[1]:
            raise ValueError(
                f"visible and hidden matrices hold {vis.shape[1]} and "
                f"{hid.shape[1]} samples"
            )

    def free_energy(self, vis: torch.Tensor) -> torch.Tensor:
        """Free energy ``F(v)`` of each column, shape (num_samples,)."""
        return -(self.vbias @ vis) - F.softplus(
            self.W @ vis + self.hbias.unsqueeze(1)
        ).sum(dim=0)

    def gibbs_free_energy(self, m_vis, m_hid, approx="tap2") -> torch.Tensor:
        """EMF Gibbs free energy at the given magnetizations, one value per column.

        The expansion is truncated at the order of ``approx`` (first order for
        ``"naive"``). At a fixed point of :meth:`equilibrate` its negative
        approximates ``log Z``.
        """
        approx = ApproxType.parse(approx)
        eps = max(EPS, torch.finfo(m_vis.dtype).eps)
        m_vis = m_vis.clamp(eps, 1.0 - eps)
        m_hid = m_hid.clamp(eps, 1.0 - eps)

        entropy = -(
            m_vis * torch.log(m_vis) + (1.0 - m_vis) * torch.log(1.0 - m_vis)
        ).sum(dim=0) - (
            m_hid * torch.log(m_hid) + (1.0 - m_hid) * torch.log(1.0 - m_hid)
        ).sum(dim=0)
        neg_energy = (
            self.vbias @ m_vis
            + self.hbias @ m_hid
            + (m_hid * (self.W @ m_vis)).sum(dim=0)
        )
        if approx.is_tap:
            var_vis = m_vis - m_vis * m_vis
            var_hid = m_hid - m_hid * m_hid
            neg_energy = neg_energy + 0.5 * (
                var_hid * (self.squared_weights() @ var_vis)
            ).sum(dim=0)
            if approx is ApproxType.TAP3:
                neg_energy = neg_energy + (2.0 / 3.0) * (
                    var_hid * (0.5 - m_hid)
                    * (self.cubed_weights() @ (var_vis * (0.5 - m_vis)))
                ).sum(dim=0)
        return -(entropy + neg_energy)

    def score_samples(self, vis: torch.Tensor) -> torch.Tensor:
        """Stochastic pseudo-log-likelihood of each column.

        One randomly chosen feature of every sample is flipped and the score is
        ``num_visible * log(sigmoid(F(v_flip) - F(v)))``.
        """
        num_samples = vis.shape[1]
        rows = torch.randint(self.num_visible, (num_samples,), device=vis.device)
        cols = torch.arange(num_samples, device=vis.device)
        flipped = vis.clone()
        flipped[rows, cols] = 1.0 - flipped[rows, cols]
        return self.num_visible * F.logsigmoid(
            self.free_energy(flipped) - self.free_energy(vis)
        )

    def score_samples_tap(self, vis: torch.Tensor, approx="tap2", iterations=3) -> torch.Tensor:
        """EMF estimate of ``log p(v)`` for each column.

        ``log Z`` is estimated by equilibrating magnetizations from a uniform
        random start and evaluating :meth:`gibbs_free_energy` there.
        """
        m_vis = torch.rand_like(vis)
        m_hid = self.condprob_hid(m_vis)
        m_vis, m_hid = self.equilibrate(m_vis, m_hid, iterations=iterations, approx=approx)
        log_z = -self.gibbs_free_energy(m_vis, m_hid, approx=approx)
        return -self.free_energy(vis) - log_z

    def recon_error(self, vis: torch.Tensor) -> float:
        """Mean over samples of the squared reconstruction error through p(h|v), p(v|h)."""
        recon = self.condprob_vis(self.condprob_hid(vis))
        return ((vis - recon) ** 2).sum(dim=0).mean().item()
