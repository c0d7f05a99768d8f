#!/usr/bin/env python3
"""
Run script for the on-device voice stress monitor

Usage:
    python run_monitor.py run                 # Start live monitoring
    python run_monitor.py analyze clip.wav    # Analyse a recorded clip
    python run_monitor.py benchmark           # Benchmark the emotion model

Make sure to install the package first:
    pip install -e .[ai]
"""

from voicestress.main import main

if __name__ == '__main__':
    main()
