"""Indexer process lifecycle."""

from indexer_spine.supervisor.process import ProcessState, ProcessSupervisor

__all__ = ["ProcessState", "ProcessSupervisor"]
