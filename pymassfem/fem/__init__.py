# pymassfem.fem
