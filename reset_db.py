import asyncio
import sys
import os

# Aggiungi backend/ alla PYTHONPATH per importare invoicing.*
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from invoicing.core.database import close_db, engine, reset_schema, session_scope
from invoicing.services.template_service import TemplateService

async def reset():
    print(f"Connessione al database ({engine.url.render_as_string(hide_password=True)})...")
    await reset_schema(engine)
    print("Tabelle ricreate. Inserimento preset...")
    async with session_scope() as session:
        created = await TemplateService().seed_presets(session)
    print(f"Preset inseriti: {created}")
    await close_db()
    print("Database resettato con successo!")

if __name__ == "__main__":
    asyncio.run(reset())
