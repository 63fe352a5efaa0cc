# -*- coding: utf-8 -*-
# Copyright (C) 2025-present Beijing QBoson Quantum Technology Co., Ltd.
#
# SPDX-License-Identifier: Apache-2.0
"""HDF5 checkpoint store.

Parameters are stored as flat datasets named ``<root>__<field>``, e.g.
``Epoch0005__W``, ``Epoch0005__vbias`` and ``Epoch0005__hbias``.
"""
import h5py
import numpy as np

PARAM_FIELDS = ("W", "vbias", "hbias")


def epoch_root(epoch: int) -> str:
    """Checkpoint root of an epoch, e.g. ``Epoch0012``."""
    return f"Epoch{epoch:04d}"


def param_key(root: str, field: str) -> str:
    return f"{root}__{field}"


def _write_params(h5file, model, root):
    for field in PARAM_FIELDS:
        key = param_key(root, field)
        if key in h5file:
            del h5file[key]
        h5file.create_dataset(key, data=getattr(model, field).detach().cpu().numpy())


def save_params(path, model, root):
    """Creates (or truncates) ``path`` and writes the parameters under ``root``."""
    with h5py.File(path, "w") as h5file:
        _write_params(h5file, model, root)


def append_params(path, model, root):
    """Adds the parameters under ``root`` to ``path``, creating it if absent.

    Datasets already stored under ``root`` are replaced.
    """
    with h5py.File(path, "a") as h5file:
        _write_params(h5file, model, root)


def list_roots(path):
    """Sorted roots stored in ``path``."""
    with h5py.File(path, "r") as h5file:
        return sorted({key.rsplit("__", 1)[0] for key in h5file.keys()})


def load_params(path, model, root, approx="CD"):
    """Restores the parameters stored under ``root`` into ``model``.

    Args:
        path (str): HDF5 file.
        model (BernoulliRBM): Model to load into; shapes must match.
        root (str): Checkpoint root, e.g. ``epoch_root(5)``.
        approx: Approximation whose weight powers are recomputed afterwards.

    Raises:
        KeyError: If a field is missing under ``root``.
        ValueError: If a stored array does not match the model's shape.

    Mutates:
        ``model.W``, ``model.vbias``, ``model.hbias``, ``model.W2``, ``model.W3``.
    """
    with h5py.File(path, "r") as h5file:
        arrays = {
            field: np.array(h5file[param_key(root, field)]) for field in PARAM_FIELDS
        }

    for field, array in arrays.items():
        target = getattr(model, field)
        if tuple(array.shape) != tuple(target.shape):
            raise ValueError(
                f"{param_key(root, field)} has shape {array.shape}, "
                f"model expects {tuple(target.shape)}"
            )
        target.copy_(model.as_tensor(array))
    model.refresh_derived_weights(approx)
    return model
