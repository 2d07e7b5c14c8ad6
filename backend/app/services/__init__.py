"""Service layer: CMS access, assistants, embeddings and conversation storage."""
