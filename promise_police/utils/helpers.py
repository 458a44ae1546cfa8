# ============================================================
# UTILITY HELPERS
# ============================================================

import os
import traceback
from pathlib import Path
from typing import Iterable, Optional


# Frames from files under this directory are supervision internals
PACKAGE_ROOT = os.path.realpath(Path(__file__).resolve().parent.parent)


# ============================================================
# STACK UTILITIES
# ============================================================

def capture_stack() -> traceback.StackSummary:
    """Capture the current call stack, most recent call last"""
    return traceback.extract_stack()


def is_internal_frame(
    frame: traceback.FrameSummary,
    roots: Iterable[str] = (PACKAGE_ROOT,)
) -> bool:
    """Check whether a frame belongs to one of the given source trees"""
    filename = os.path.realpath(frame.filename)
    return any(
        filename == root or filename.startswith(root + os.sep)
        for root in roots
    )


def strip_internal_frames(
    stack: traceback.StackSummary,
    roots: Optional[Iterable[str]] = None
) -> traceback.StackSummary:
    """Drop supervision-internal frames from a captured stack"""
    roots = tuple(roots) if roots is not None else (PACKAGE_ROOT,)
    return traceback.StackSummary.from_list(
        [frame for frame in stack if not is_internal_frame(frame, roots)]
    )


def format_stack(stack: traceback.StackSummary, header: str) -> str:
    """Render a stack the way tracebacks are printed, under a header line"""
    return header + "\n" + "".join(stack.format())


# ============================================================
# TIME UTILITIES
# ============================================================

def format_duration(seconds: float) -> str:
    """Format duration in human-readable format"""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:g}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"
