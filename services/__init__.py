# Services package for the manga downloader worker
# Each subpackage owns one concern: database, file handling, download,
# notification and messaging. Wiring lives in service_manager.
