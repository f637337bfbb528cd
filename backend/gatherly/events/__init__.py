"""Events, registrations, activity feed and notifications."""
