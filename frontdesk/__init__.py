"""
Backend applicativo Front Desk (ambulatorio).

Struttura:
- config.py        : impostazioni da ambiente / .env
- logging_setup.py : logging JSON (console + file giornaliero opzionale)
- db.py            : engine e sessioni SQLAlchemy
- models.py        : modelli ORM (pazienti, visite, contatori token)
- tokens.py        : numerazione giornaliera dei token
- services.py      : registro pazienti, ciclo di vita visite, dashboard
- auth_*.py        : verifica credenziali e JWT
- api_main.py      : API REST FastAPI
- cli.py           : operazioni da riga di comando
- client.py        : helper HTTP usati dalla UI Streamlit
"""
