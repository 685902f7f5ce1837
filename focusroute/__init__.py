"""
focusroute - Attention-based working memory for coding assistants

Keeps a bounded set of documentation fragments in context. Every turn,
scores decay, keyword mentions re-activate fragments, related fragments
get a co-activation boost, and the best-scoring ones are injected as full
text (HOT) or headers (WARM) under a fixed character budget.

Quick start:
    pip install focusroute
    echo '{"prompt": "fix the api handler"}' | focusroute route
    focusroute status
"""

__version__ = "0.1.0"
__all__ = [
    "__version__",
    "AttentionEngine",
    "AttentionState",
    "ContentResolver",
    "RouterConfig",
    "FragmentConfig",
    "Tier",
    "build_context_output",
    "compute_transitions",
    "get_tier",
    "run_turn",
    "update_attention",
]

from focusroute.attention import AttentionEngine, update_attention  # noqa: E402
from focusroute.config import FragmentConfig, RouterConfig  # noqa: E402
from focusroute.content import ContentResolver  # noqa: E402
from focusroute.history import compute_transitions  # noqa: E402
from focusroute.router import run_turn  # noqa: E402
from focusroute.selector import build_context_output  # noqa: E402
from focusroute.state import AttentionState  # noqa: E402
from focusroute.tiers import Tier, get_tier  # noqa: E402
