"""Dual-ring, barrier-synchronized actuated signal controller.
Version: 0.1.0
License: MIT
Code generated with support from CODEX and CODEX CLI.
Owner / Idea / Management: Dr. Babak Sorkhpour (https://x.com/Drbabakskr)
Author: Dr. Babak Sorkhpour with support from ChatGPT
"""

from __future__ import annotations

APP_NAME = "ringbarrier"
SEMVER = "0.1.0"
