"""SignalLabelLab - Main Entry Point

Command-line tool for aligning keypress labels with an OpenSignals recording,
editing the labeled segments and re-exporting both files.
"""
import sys

from signal_label_lab.app import main

if __name__ == "__main__":
    sys.exit(main())
