"""Domain layer for networth application.

Services are imported from their modules directly (e.g.
``from networth.domain.reconciler import BalanceReconciler``) so the database
layer can import entities without pulling in the services.
"""
