# -*- coding: utf-8 -*-
# Copyright (C) 2025-present Beijing QBoson Quantum Technology Co., Ltd.
#
# SPDX-License-Identifier: Apache-2.0
"""Negative-phase sampling and generation"""
import torch

from .config import ApproxType


def get_negative_samples(model, vis_init, hid_init, approx, iterations):
    """Produces the negative phase of the gradient.

    For Gibbs sampling (CD) the chains start from ``hid_init``; the binary
    visible samples and the hidden means of the last step are returned.
    For the mean-field approximations the magnetizations are equilibrated from
    ``(vis_init, hid_init)`` and returned as they are.

    Args:
        model (BernoulliRBM): Model to sample from.
        vis_init (torch.Tensor): Visible start, (num_visible, num_samples).
            Unused by CD.
        hid_init (torch.Tensor): Hidden start, (num_hidden, num_samples).
        approx: Approximation type.
        iterations (int): Gibbs steps or fixed-point iterations.

    Returns:
        tuple[torch.Tensor, torch.Tensor]: ``(v_neg, h_neg)``.
    """
    approx = ApproxType.parse(approx)
    if approx.is_mean_field:
        return model.equilibrate(vis_init, hid_init, iterations=iterations, approx=approx)

    model.check_shapes(hid=hid_init)
    v_neg, _, _, h_neg = model.mcmc(hid_init, iterations=iterations, start_mode="hidden")
    return v_neg, h_neg


def generate(model, vis_init, approx=ApproxType.CD, iterations=1):
    """Draws visible samples after running the sampler from ``vis_init``.

    Args:
        model (BernoulliRBM): Model to sample from.
        vis_init (array-like): Visible start, (num_visible, num_samples).
        approx: Approximation type.
        iterations (int): Gibbs steps or fixed-point iterations.

    Returns:
        torch.Tensor: Binary samples of shape ``(num_samples, *model.vis_shape)``.
    """
    approx = ApproxType.parse(approx)
    vis_init = model.as_tensor(vis_init)
    model.check_shapes(vis=vis_init)

    with torch.no_grad():
        if approx.is_mean_field:
            _, hid_mag = model.equilibrate(
                vis_init, model.condprob_hid(vis_init), iterations=iterations, approx=approx
            )
        else:
            _, _, _, hid_mag = model.mcmc(vis_init, iterations=iterations, start_mode="visible")
        samples, _ = model.sample_visibles(hid_mag)

    return samples.t().reshape(-1, *model.vis_shape)
