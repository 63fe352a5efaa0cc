# -*- coding: utf-8 -*-
"""EMF/TAP training of Restricted and Deep Boltzmann Machines"""
from .restricted_boltzmann_machine import BernoulliRBM
from .dbm import DeepBoltzmannMachine
from .config import ApproxType, TrainingConfig, WeightDecay, default_train_parameters
from .monitor import Monitor, MonitorRecord
from .observers import LoggingObserver, TrainingObserver
from .sampling import generate, get_negative_samples
from .training import fit, fit_batch
from .checkpoint import append_params, load_params, save_params

__all__ = [
    "BernoulliRBM",
    "DeepBoltzmannMachine",
    "ApproxType",
    "TrainingConfig",
    "WeightDecay",
    "default_train_parameters",
    "Monitor",
    "MonitorRecord",
    "LoggingObserver",
    "TrainingObserver",
    "generate",
    "get_negative_samples",
    "fit",
    "fit_batch",
    "append_params",
    "load_params",
    "save_params",
]
