# -*- coding: utf-8 -*-
# Copyright (C) 2025-present Beijing QBoson Quantum Technology Co., Ltd.
#
# SPDX-License-Identifier: Apache-2.0
"""Weight-gradient kernels and weight regularization.

The gradient is written into ``model.dW`` first and committed to ``model.W``
by a separate call, so a regularizer can modify the step in between.
"""
import math
import warnings

import torch

from .config import ApproxType


def calculate_weight_gradient(model, h_pos, v_pos, h_neg, v_neg, lr, approx=ApproxType.CD):
    """Loads ``model.dW`` with the (EMF-corrected) likelihood gradient step.

    ``dW = lr * (h_pos v_pos^T - h_neg v_neg^T)``, minus the second-order EMF
    correction for TAP modes and the third-order one for TAP3, plus
    ``momentum * dW_prev``.

    Args:
        model (BernoulliRBM): Model whose gradient buffer is filled.
        h_pos, v_pos (torch.Tensor): Positive-phase hidden and visible matrices.
        h_neg, v_neg (torch.Tensor): Negative-phase hidden and visible matrices.
        lr (float): Learning rate.
        approx: Approximation used to obtain the negative phase.

    Raises:
        ValueError: If a sample matrix does not match the model's layer sizes.

    Mutates:
        ``model.dW`` (and ``model.W2``/``W3`` when they are computed lazily).
    """
    approx = ApproxType.parse(approx)
    model.check_shapes(v_pos, h_pos)
    model.check_shapes(v_neg, h_neg)
    dW = model.dW

    # dW <- lr * <h_neg, v_neg>
    torch.mm(h_neg, v_neg.t(), out=dW)
    dW.mul_(lr)
    # dW <- lr * <h_pos, v_pos> - dW
    dW.neg_().addmm_(h_pos, v_pos.t(), alpha=lr)

    if approx.is_tap:
        var_hid = h_neg - h_neg * h_neg
        var_vis = v_neg - v_neg * v_neg
        dW.sub_((var_hid @ var_vis.t()) * model.W, alpha=lr)
        if approx is ApproxType.TAP3:
            buf3 = ((var_hid * (0.5 - h_neg)) @ (var_vis * (0.5 - v_neg)).t()) * (
                model.squared_weights()
            )
            dW.sub_(buf3, alpha=2.0 * lr)

    dW.add_(model.dW_prev, alpha=model.momentum)
    return dW


def update_weights(model, approx=ApproxType.CD):
    """Takes the step held in ``model.dW``.

    Mutates:
        ``model.W``, ``model.dW_prev``, ``model.W2``, ``model.W3``.
    """
    model.W.add_(model.dW)
    model.dW_prev.copy_(model.dW)
    model.refresh_derived_weights(approx)


def regularize_weight_gradient(
    model, lr, l2_penalty=math.nan, l1_penalty=math.nan, dropout_rate=math.nan
):
    """Applies a weight penalty to ``model.dW`` in place.

    A penalty is inactive when it is NaN; zero is an active penalty of size
    zero. The call keeps no state, so applying it twice penalises twice.

    Args:
        model (BernoulliRBM): Model whose gradient buffer is penalised.
        lr (float): Learning rate.
        l2_penalty (float): Quadratic shrinkage, ``dW -= lr*l2*W``.
        l1_penalty (float): Sparsifying penalty, ``dW -= lr*l1*sign(W)``.
        dropout_rate (float): Accepted but not implemented; a set value only
            raises a ``RuntimeWarning``.

    Raises:
        ValueError: If both ``l1_penalty`` and ``l2_penalty`` are set.

    Mutates:
        ``model.dW``.
    """
    if not math.isnan(l2_penalty) and not math.isnan(l1_penalty):
        raise ValueError("Only one of l1_penalty and l2_penalty may be set per call")

    if not math.isnan(l2_penalty):
        model.dW.add_(model.W, alpha=-lr * l2_penalty)
    if not math.isnan(l1_penalty):
        model.dW.add_(torch.sign(model.W), alpha=-lr * l1_penalty)
    if not math.isnan(dropout_rate):
        warnings.warn(
            f"Dropout (rate={dropout_rate}) is not implemented; the weight step is left unchanged",
            RuntimeWarning,
            stacklevel=2,
        )
    return model.dW
