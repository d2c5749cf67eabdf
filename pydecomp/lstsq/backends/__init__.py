"""Least-squares backends."""

from pydecomp.lstsq.backends.cpu import CPUCholeskyBackend, CPUSVDBackend

__all__ = [
    "CPUCholeskyBackend",
    "CPUSVDBackend",
]
