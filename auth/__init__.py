"""auth/ -- Session credential core for PulseAuth.

passwords.py (argon2id verifiers), tokens.py (JWT codec), store.py
(users + refresh token registry), session.py (login / rotation / logout),
guard.py (bearer header + role checks), roles.py, models.py, metrics.py
(login counter), container.py (wiring).

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/. api/ imports from auth/, not the other way
around. dependencies.py is the single FastAPI-aware module here.
"""
