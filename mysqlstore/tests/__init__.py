"""Tests for :mod:`mysqlstore`."""
