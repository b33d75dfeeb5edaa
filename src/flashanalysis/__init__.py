"""
flashanalysis
=============
Inverse heat-conduction analysis of laser-flash measurements.

Why is this package needed?
---------------------------
1. Forward model: finite-difference schemes simulate the rear-face heating curve
   of a sample for a given set of thermal properties.
2. Inverse problem: gradient-based optimisers adjust those properties until the
   simulated curve matches a measured one in the least-squares sense.
3. Throughput: independent fits run in parallel worker processes.
"""
__version__ = "0.1.0"
