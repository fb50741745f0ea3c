"""Commerce subsystems: jobs, milestones and ratings."""
