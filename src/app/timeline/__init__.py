"""Team timeline module -- dated team events grouped by football season.

Provides TimelineEventModel, TimelineRepository for persistence, the pure
season logic in seasons.py (season_key_of, sort_events, group_by_season,
filter_events), and TimelineRecorder, the fire-and-forget hook the contract
workflow uses to log completed transfers.
"""
