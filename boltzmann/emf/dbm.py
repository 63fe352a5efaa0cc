# -*- coding: utf-8 -*-
# Copyright (C) 2025-present Beijing QBoson Quantum Technology Co., Ltd.
#
# SPDX-License-Identifier: Apache-2.0
"""Deep Boltzmann Machine as a stack of named RBM layers, with greedy
layer-wise pre-training."""
import dataclasses

import torch
from torch import nn

from .checkpoint import append_params, save_params
from .config import TrainingConfig
from .training import fit


class DeepBoltzmannMachine(nn.Module):
    """Stack of RBMs where the hidden layer of each RBM is the visible layer
    of the next one.

    Args:
        layers (list[tuple[str, BernoulliRBM]]): Named layers, bottom first.

    Raises:
        ValueError: If the list is empty, names repeat, or the hidden size of a
            layer differs from the visible size of the layer above.
    """

    def __init__(self, layers):
        super().__init__()
        if not layers:
            raise ValueError("A DBM needs at least one layer")
        names = [name for name, _ in layers]
        if len(set(names)) != len(names):
            raise ValueError(f"Layer names must be unique, got {names}")
        for (name_below, below), (name_above, above) in zip(layers, layers[1:]):
            if below.num_hidden != above.num_visible:
                raise ValueError(
                    f"Layer {name_below!r} has {below.num_hidden} hidden units but "
                    f"{name_above!r} has {above.num_visible} visible units"
                )
        self.layer_names = names
        self.rbm_layers = nn.ModuleList([rbm for _, rbm in layers])

    def __len__(self):
        return len(self.rbm_layers)

    def __getitem__(self, key):
        """Layer by position (0-based) or by name."""
        if isinstance(key, str):
            return self.rbm_layers[self.layer_names.index(key)]
        return self.rbm_layers[key]

    def extra_repr(self) -> str:
        return "layers=" + ", ".join(
            f"{name}({rbm.num_visible}->{rbm.num_hidden})"
            for name, rbm in zip(self.layer_names, self.rbm_layers)
        )

    @property
    def num_layers(self):
        return len(self.rbm_layers)

    @property
    def input_dim(self):
        return self.rbm_layers[0].num_visible

    @property
    def output_dim(self):
        return self.rbm_layers[-1].num_hidden

    def prob_hid_at_layer_cond_on_vis(self, vis, layer):
        """Mean activations of the hidden layer of ``layer`` (0-based), fed
        forward from the visible data through the layers below.

        Args:
            vis (array-like): Visible matrix (num_visible, num_samples).
            layer (int): Layer index.
        """
        if not 0 <= layer < self.num_layers:
            raise ValueError(f"Layer index {layer} out of range.")
        hid = self.rbm_layers[0].as_tensor(vis)
        for rbm in self.rbm_layers[: layer + 1]:
            rbm.check_shapes(vis=hid)
            hid = rbm.condprob_hid(hid)
        return hid

    def prob_hid_cond_on_neighbors(self, layer, below, above=None):
        """Mean activations of the hidden layer of ``layer`` given the layers
        on both sides: ``sigmoid(W_k below + W_{k+1}^T above + hbias_k)``.

        ``above`` may be omitted for the top layer, which has no upper neighbour.
        """
        rbm = self.rbm_layers[layer]
        rbm.check_shapes(vis=below)
        field = rbm.W @ below + rbm.hbias.unsqueeze(1)
        if above is not None:
            if layer + 1 >= self.num_layers:
                raise ValueError(f"Layer {layer} is the top layer and has no layer above")
            upper = self.rbm_layers[layer + 1]
            upper.check_shapes(hid=above)
            field = field + upper.W.t() @ above
        return torch.sigmoid(field)

    def transform(self, X):
        """Mean activations of the top hidden layer."""
        return self.prob_hid_at_layer_cond_on_vis(X, self.num_layers - 1)

    def reconstruct(self, X, layer_index=0):
        """Reconstructs the input of one layer through p(h|v) then p(v|h).

        Returns:
            tuple[torch.Tensor, torch.Tensor]: Reconstruction and the per-sample
            squared error.
        """
        if layer_index >= self.num_layers:
            raise ValueError(f"Layer index {layer_index} out of range.")
        rbm = self.rbm_layers[layer_index]
        vis = rbm.as_tensor(X)
        if layer_index > 0:
            vis = self.prob_hid_at_layer_cond_on_vis(vis, layer_index - 1)
        visible_recon = rbm.condprob_vis(rbm.condprob_hid(vis))
        return visible_recon, ((vis - visible_recon) ** 2).sum(dim=0)

    def pre_fit(self, X, options=None, observers=None):
        """Greedy layer-wise training.

        The bottom layer is fit on ``X``; every other layer on the hidden mean
        activations of the layer below. A validation set in the options is
        propagated the same way. Checkpoints of each layer are written under
        ``Epoch<NNNN>__<layer name>``, the layout of :meth:`save_params`.

        Args:
            X (array-like): Training matrix (num_visible, num_samples).
            options (Mapping | TrainingConfig): Options used for every layer.
            observers (list[TrainingObserver], optional): Passed to each ``fit``.

        Returns:
            list[Monitor]: One training history per layer, bottom first.
        """
        config = (
            options if isinstance(options, TrainingConfig) else TrainingConfig.from_options(options)
        )
        data = self.rbm_layers[0].as_tensor(X)
        validation = config.validation_set
        if validation is not None:
            validation = self.rbm_layers[0].as_tensor(validation)

        monitors = []
        for index, (name, rbm) in enumerate(zip(self.layer_names, self.rbm_layers)):
            layer_config = dataclasses.replace(config, validation_set=validation)
            _, monitor = fit(
                rbm, data, layer_config, observers=observers, root_suffix=f"__{name}"
            )
            monitors.append(monitor)
            if index + 1 < self.num_layers:
                data = rbm.condprob_hid(data)
                if validation is not None:
                    validation = rbm.condprob_hid(validation)
        return monitors

    def save_params(self, path, root):
        """Writes every layer to a new file under ``<root>__<layer name>``."""
        for index, (name, rbm) in enumerate(zip(self.layer_names, self.rbm_layers)):
            writer = save_params if index == 0 else append_params
            writer(path, rbm, f"{root}__{name}")

    def append_params(self, path, root):
        """Adds every layer to ``path`` under ``<root>__<layer name>``."""
        for name, rbm in zip(self.layer_names, self.rbm_layers):
            append_params(path, rbm, f"{root}__{name}")
