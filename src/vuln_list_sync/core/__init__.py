"""Side-effecting building blocks: processes, lock, working copies, updater."""
