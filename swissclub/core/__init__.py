"""Core module for the swissclub application."""

from .types import FirestoreDocument, ResultDocument, TournamentDocument

__all__ = ["FirestoreDocument", "ResultDocument", "TournamentDocument"]
