"""Engine, transactional store, seeding and migrations."""
