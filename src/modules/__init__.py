"""
Feature modules of the progression engine.

- shared: BaseService, BaseRepository, domain exceptions, unit of work
- ledger, cards, deck, rank, season, purchase: feature services
- progression: ProgressionService facade (external intake, queries, commands)
"""
