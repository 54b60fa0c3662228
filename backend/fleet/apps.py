import atexit

from django.apps import AppConfig


class FleetConfig(AppConfig):
    name = 'fleet'
    verbose_name = 'Fleet ELD client'

    session = None
    repository = None

    def ready(self):
        from .session import SessionStore

        self.install(SessionStore())
        atexit.register(self.shutdown)

    def install(self, session):
        """Wire a session and its repository; the repository empties on logout."""
        from .caches import FleetRepository

        self.session = session
        self.repository = FleetRepository(session.client)
        session.add_logout_listener(self.repository.clear)
        return self.repository

    def shutdown(self):
        """Stop background fetches and release the HTTP connection pool."""
        if self.repository is not None:
            self.repository.close()
        if self.session is not None:
            self.session.close()
