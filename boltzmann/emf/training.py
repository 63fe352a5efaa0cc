# -*- coding: utf-8 -*-
# Copyright (C) 2025-present Beijing QBoson Quantum Technology Co., Ltd.
#
# SPDX-License-Identifier: Apache-2.0
"""Mini-batch training of RBMs with CD, persistent CD and EMF/TAP.

Data matrices are laid out column-wise: ``X`` has shape
(num_features, num_samples) and a mini-batch is a contiguous slice of columns.
"""
import math
import os
import time

import torch
from tqdm import tqdm

from .checkpoint import append_params, epoch_root, save_params
from .config import ApproxType, TrainingConfig, WeightDecay
from .gradient import calculate_weight_gradient, regularize_weight_gradient, update_weights
from .monitor import Monitor
from .observers import LoggingObserver
from .sampling import get_negative_samples


def random_columns(X, n_columns):
    """Returns ``n_columns`` randomly chosen columns of ``X`` as a new tensor.

    Columns are drawn without replacement when ``X`` has enough of them.
    """
    n_samples = X.shape[1]
    if n_columns <= n_samples:
        index = torch.randperm(n_samples, device=X.device)[:n_columns]
    else:
        index = torch.randint(n_samples, (n_columns,), device=X.device)
    return X[:, index]


def init_persistent_chain(model, X, n_chains):
    """Seeds the persistent chain with random training columns.

    Mutates:
        ``model.persistent_chain_vis``, ``model.persistent_chain_hid``.
    """
    model.persistent_chain_vis = random_columns(X, n_chains)
    model.persistent_chain_hid = model.condprob_hid(model.persistent_chain_vis)


def fit_batch(
    model,
    vis,
    persistent=True,
    lr=0.1,
    approx_iters=1,
    weight_decay=WeightDecay.NONE,
    decay_magnitude=0.01,
    approx=ApproxType.CD,
    dropout_rate=math.nan,
):
    """Performs one gradient update on the mini-batch ``vis``.

    The negative phase starts from:

    * persistent mean-field: a copy of the stored chain;
    * persistent CD: hidden samples drawn from the stored visible chain;
    * non-persistent mean-field: ``vis`` and its hidden means;
    * non-persistent CD: hidden samples drawn from ``vis``.

    Args:
        model (BernoulliRBM): Model to update.
        vis (torch.Tensor): Mini-batch, (num_visible, batch_size). Not modified.
        persistent (bool): Whether the stored chain drives the negative phase.
        lr (float): Learning rate (already scaled by the batch size).
        approx_iters (int): Gibbs steps or mean-field iterations.
        weight_decay: ``"none"``, ``"l1"`` or ``"l2"``.
        decay_magnitude (float): Weight decay penalty.
        approx: ``"CD"``, ``"naive"``, ``"tap2"`` or ``"tap3"``.
        dropout_rate (float): Passed on to the regularizer (not implemented).

    Returns:
        BernoulliRBM: ``model``.

    Raises:
        ValueError: If ``vis`` or the persistent chain does not fit the model.

    Mutates:
        ``W``, ``W2``, ``W3``, ``dW``, ``dW_prev``, ``vbias``, ``hbias`` and,
        when ``persistent``, ``persistent_chain_vis``/``persistent_chain_hid``.
    """
    approx = ApproxType.parse(approx)
    weight_decay = WeightDecay.parse(weight_decay)
    model.check_shapes(vis=vis)
    if persistent:
        if model.persistent_chain_vis is None or model.persistent_chain_hid is None:
            raise ValueError("persistent chain is not initialised; call init_persistent_chain")
        model.check_shapes(model.persistent_chain_vis, model.persistent_chain_hid)

    v_pos = vis
    h_samples, h_pos = model.sample_hiddens(v_pos)

    if persistent:
        if approx.is_mean_field:
            v_init = model.persistent_chain_vis.clone()
            h_init = model.persistent_chain_hid.clone()
        else:
            v_init = vis  # not read by the Gibbs sampler
            h_init, _ = model.sample_hiddens(model.persistent_chain_vis)
    elif approx.is_mean_field:
        v_init = vis
        h_init = h_pos
    else:
        v_init = vis  # not read by the Gibbs sampler
        h_init = h_samples

    v_neg, h_neg = get_negative_samples(model, v_init, h_init, approx, approx_iters)

    if persistent:
        model.persistent_chain_vis.copy_(v_neg)
        model.persistent_chain_hid.copy_(h_neg)

    calculate_weight_gradient(model, h_pos, v_pos, h_neg, v_neg, lr, approx=approx)
    if weight_decay is WeightDecay.L2:
        regularize_weight_gradient(
            model, lr, l2_penalty=decay_magnitude, dropout_rate=dropout_rate
        )
    elif weight_decay is WeightDecay.L1:
        regularize_weight_gradient(
            model, lr, l1_penalty=decay_magnitude, dropout_rate=dropout_rate
        )
    elif not math.isnan(dropout_rate):
        regularize_weight_gradient(model, lr, dropout_rate=dropout_rate)
    update_weights(model, approx)

    model.hbias.add_(h_pos.sum(dim=1) - h_neg.sum(dim=1), alpha=lr)
    model.vbias.add_(v_pos.sum(dim=1) - v_neg.sum(dim=1), alpha=lr)
    return model


def _notify(observers, hook, *args):
    for observer in observers:
        getattr(observer, hook)(*args)


def _save_checkpoint(model, path, root, observers):
    created = not os.path.isfile(path)
    try:
        if created:
            save_params(path, model, root)
        else:
            append_params(path, model, root)
    except OSError as error:
        _notify(observers, "on_checkpoint_error", path, root, error)
    else:
        _notify(observers, "on_checkpoint", path, root, created)


def fit(model, X, options=None, observers=None, root_suffix=""):
    """Trains ``model`` on ``X``.

    Learns the weights and biases with CD, persistent CD or one of the EMF
    approximations, depending on the options.

    Args:
        model (BernoulliRBM): Model initialised by the caller.
        X (array-like): Training matrix (num_features, num_samples) with every
            value in [0, 1].
        options (Mapping | TrainingConfig): Training options, see
            :func:`boltzmann.emf.config.default_train_parameters`.
            ``learnRate`` and ``batchSize`` are required.
        observers (list[TrainingObserver], optional): Hooks called during the
            run. Defaults to a :class:`LoggingObserver` when ``showMonitor`` is
            set and to nothing otherwise.
        root_suffix (str): Appended to the checkpoint root of every epoch, e.g.
            ``"__vishid1"`` gives ``Epoch0005__vishid1``.

    Returns:
        tuple[BernoulliRBM, Monitor]: The trained model and its training history.

    Raises:
        ValueError: On invalid options or data outside [0, 1], before any
            training happens.
    """
    config = options if isinstance(options, TrainingConfig) else TrainingConfig.from_options(options)

    X = model.as_tensor(X)
    model.check_shapes(vis=X)
    if X.numel() == 0:
        raise ValueError("Training matrix is empty")
    if not (X.min().item() >= 0.0 and X.max().item() <= 1.0):
        raise ValueError("Training data must lie in [0, 1]")

    validation = None
    if config.validation_set is not None:
        validation = model.as_tensor(config.validation_set)
        model.check_shapes(vis=validation)

    if observers is None:
        observers = [LoggingObserver()] if config.show_monitor else []

    n_samples = X.shape[1]
    batch_size = int(config.batch_size)
    n_batches = math.ceil(n_samples / batch_size)
    n_units = model.num_visible + model.num_hidden
    monitor = Monitor(config.epochs, config.monitor_every, use_validation=validation is not None)

    _notify(observers, "on_train_begin", model, config, n_samples)

    lr = config.learn_rate / batch_size
    init_persistent_chain(model, X, batch_size)

    for epoch in range(1, config.epochs + 1):
        persistent = config.use_persistence(epoch)
        _notify(observers, "on_epoch_begin", epoch, persistent)

        start = time.perf_counter()
        for batch_index in tqdm(
            range(n_batches),
            desc=f"Fitting batches (epoch {epoch})",
            leave=False,
            disable=not config.show_monitor,
        ):
            batch = X[:, batch_index * batch_size : (batch_index + 1) * batch_size]
            fit_batch(
                model,
                batch,
                persistent=persistent,
                lr=lr,
                approx_iters=config.approx_iters,
                weight_decay=config.weight_decay_type,
                decay_magnitude=config.weight_decay_magnitude,
                approx=config.approx_type,
                dropout_rate=config.dropout_rate,
            )
            _notify(observers, "on_batch_end", model, epoch, batch_index)
        # average wall time per batch and per unit, in microseconds
        batch_time_us = (time.perf_counter() - start) / n_batches / n_units * 1e6

        if config.should_monitor(epoch):
            monitor.update(
                model,
                X,
                epoch,
                batch_time_us=batch_time_us,
                lr=lr,
                momentum=model.momentum,
                validation=validation,
                approx=config.approx_type,
                approx_iters=config.approx_iters,
            )
        _notify(observers, "on_epoch_end", model, monitor, epoch)

        if config.should_save(epoch):
            _save_checkpoint(
                model, config.save_file, epoch_root(epoch) + root_suffix, observers
            )

    _notify(observers, "on_train_end", model, monitor)
    return model, monitor
