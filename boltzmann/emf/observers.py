# -*- coding: utf-8 -*-
# Copyright (C) 2025-present Beijing QBoson Quantum Technology Co., Ltd.
#
# SPDX-License-Identifier: Apache-2.0
"""Training observers.

:func:`boltzmann.emf.training.fit` reports its progress by calling these hooks
at fixed points of the run; it never logs on its own.
"""
import logging

logger = logging.getLogger(__name__)


class TrainingObserver:
    """Base observer; every hook is a no-op. Subclass and override what you need."""

    def on_train_begin(self, model, config, n_samples):
        """Called once after validation of inputs, before the first epoch."""

    def on_epoch_begin(self, epoch, persistent):
        """Called before the first batch of ``epoch`` (1-based)."""

    def on_batch_end(self, model, epoch, batch_index):
        """Called after the update of batch ``batch_index`` (0-based) is committed."""

    def on_epoch_end(self, model, monitor, epoch):
        """Called after the monitor has (possibly) been updated for ``epoch``."""

    def on_checkpoint(self, path, root, created):
        """Called after parameters were written under ``root``."""

    def on_checkpoint_error(self, path, root, error):
        """Called when writing a checkpoint failed; training continues."""

    def on_train_end(self, model, monitor):
        """Called once after the last epoch."""


class LoggingObserver(TrainingObserver):
    """Reports the run through :mod:`logging`.

    Args:
        log (logging.Logger, optional): Logger to write to. Defaults to this
            module's logger.
    """

    def __init__(self, log=None):
        self.log = log if log is not None else logger

    def on_train_begin(self, model, config, n_samples):
        n_valid = 0
        if config.validation_set is not None:
            n_valid = model.as_tensor(config.validation_set).shape[1]
        self.log.info("=====================================")
        self.log.info("RBM Training")
        self.log.info("=====================================")
        self.log.info("  + Training Samples:     %d", n_samples)
        self.log.info("  + Features:             %d", model.num_visible)
        self.log.info("  + Hidden Units:         %d", model.num_hidden)
        self.log.info("  + Epochs to run:        %d", config.epochs)
        self.log.info("  + Persistent ?:         %s", config.persist)
        self.log.info("  + Training approx:      %s", config.approx_type.value)
        self.log.info("  + Momentum:             %s", model.momentum)
        self.log.info("  + Learning rate:        %s", config.learn_rate)
        self.log.info("  + Norm. Approx. Iters:  %d", config.approx_iters)
        self.log.info("  + Weight Decay?:        %s", config.weight_decay_type.value)
        self.log.info("  + Weight Decay Mag.:    %s", config.weight_decay_magnitude)
        self.log.info("  + Validation Set?:      %s", config.validation_set is not None)
        self.log.info("  + Validation Samples:   %d", n_valid)
        self.log.info("=====================================")

    def on_epoch_end(self, model, monitor, epoch):
        record = monitor.last
        if record is None or record.epoch != epoch:
            return
        message = (
            f"Epoch {epoch:4d}/{monitor.n_epochs}: pseudo-likelihood {record.pseudo_likelihood:.4f}, "
            f"TAP likelihood {record.tap_likelihood:.4f}, recon error {record.recon_error:.4f}, "
            f"{record.batch_time_us:.2f} us/batch/unit"
        )
        if record.validation_pseudo_likelihood is not None:
            message += (
                f", validation pseudo-likelihood {record.validation_pseudo_likelihood:.4f}"
                f", validation TAP likelihood {record.validation_tap_likelihood:.4f}"
            )
        self.log.info(message)

    def on_checkpoint(self, path, root, created):
        if created:
            self.log.info("Creating %s and saving params under %s", path, root)
        else:
            self.log.info("Appending params under %s to %s", root, path)

    def on_checkpoint_error(self, path, root, error):
        self.log.warning("Could not save params under %s to %s: %s", root, path, error)
