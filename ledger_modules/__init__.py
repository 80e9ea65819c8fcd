"""
ledger_modules -- membership accounting operations built on the kernel.

    membership  -- invoices, credit notes, receipts, claims, write-offs,
                   category changes and settlements
    reporting   -- trial balance, income statement, member balances,
                   clearing reconciliation and locked period snapshots

Modules assemble journal lines and read aggregates; every invariant is
enforced by ``ledger_kernel``.
"""
