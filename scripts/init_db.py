from llmtoolbox.core.config import settings
from llmtoolbox.core.logging_db import CallJournal

if __name__ == "__main__":
    CallJournal(settings.database_url)
    print(f"Call journal initialized at: {settings.database_url}")
