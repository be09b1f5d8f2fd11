"""Filtering module - Gaussian kernels and weighted Gaussian smoothing."""

from .kernel import build_gaussian_kernel, build_gaussian_kernel_1d
from .types import GaussianKernelParams
from .weighted_gaussian import WeightedGaussianFilter

__all__ = [
    "build_gaussian_kernel",
    "build_gaussian_kernel_1d",
    "GaussianKernelParams",
    "WeightedGaussianFilter",
]
