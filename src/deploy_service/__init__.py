"""Deploy Service: fetches a repository, runs its build commands and publishes the output."""
