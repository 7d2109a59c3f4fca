"""MCP Slim Proxy package."""

__version__ = "0.1.0"

from .config import SlimConfig, load_slim_config
from .framer import LineFramer, render_lines
from .policy import PolicyResolver, SlimPolicy, method_categories, resolve_policy
from .proxy import run_proxy
from .rewriter import MessageRewriter
from .slim import slim_json

__all__ = [
    "SlimConfig",
    "load_slim_config",
    "LineFramer",
    "render_lines",
    "PolicyResolver",
    "SlimPolicy",
    "method_categories",
    "resolve_policy",
    "run_proxy",
    "MessageRewriter",
    "slim_json",
]
