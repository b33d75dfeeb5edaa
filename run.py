"""
Entry Point Script (Bootstrap)
==============================
Development runner for the command-line demonstration.

Why is this file needed?
------------------------
1. It is located outside the 'src' package to act as a convenient runner.
2. It modifies 'sys.path' so that 'from flashanalysis...' resolves without
   installing the package.

Usage:
    $ python run.py --tasks 2 --noise 0.02
"""
import os
import sys

current_dir: str = os.path.dirname(os.path.abspath(__file__))
src_path: str = os.path.join(current_dir, 'src')
sys.path.insert(0, src_path)

from flashanalysis.main import main  # noqa: E402

if __name__ == "__main__":
    main()
