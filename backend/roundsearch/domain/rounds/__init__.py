"""Round search domain exports."""

from .service import RoundsSearchService, reset_memory_state, save_memory_round, seed_memory_store

__all__ = [
	"RoundsSearchService",
	"seed_memory_store",
	"save_memory_round",
	"reset_memory_state",
]
