"""Host collaborators: the work behind each bridge method."""
