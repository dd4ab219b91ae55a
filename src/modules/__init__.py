"""
Cagri Backend Modules

- auth: Identity provider token verification, current user / admin
- marketplace: Driver-to-driver job handover, marketplace settings
- balance: Prepaid balances, commission ledger
- sse: Realtime job event stream
"""
