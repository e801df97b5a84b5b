# Services package init
"""
TourDesk Backend: Services Layer
===================================

What:  Business logic layer sitting between routes (HTTP) and storage.

Service Inventory:
    - UploadService:      Validates the request body, buffers images in memory
    - ImageTranscoder:    Pillow pipeline to the canonical resolution/format/quality
    - ImageStore:         Durable, directory-confined image file operations
    - TourStore:          Tour snapshot reads and validated updates
    - TourImageService:   Orchestrates transcode → store → update → cleanup
"""
