# Core package initialization
# Configuration, errors, validation, pagination, logging and HTTP helpers
# shared by every layer of the application. Import submodules directly.
