"""Migration sources: the driver interface and registry, file name parsing, and file, file-system, virtual, asset, S3 and stub drivers."""