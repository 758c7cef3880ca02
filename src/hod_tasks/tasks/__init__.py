"""Task lifecycle core.

Access decisions live in ``access`` and are pure; ``services`` gates every
operation through them before ``repository`` mutates the store. The
repository is the only writer of the status history ledger, and every task
write that touches status commits together with its ledger entry.
"""
