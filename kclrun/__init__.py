"""Work with KCL evaluation results and AST, and run tasks on a pool of worker processes."""

__version__ = "0.1.0"
__all__ = ["nodes", "decoder", "results", "pool"]