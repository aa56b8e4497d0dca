"""
Core application engine for orchestrating Space downloads.

The `DownloadManager` acts as the high-level run coordinator. Each Space gets
its own `Session`, whose resolvers locate the audio, and the
`DownloadPipelineComposer` turns the result into FFmpeg jobs.
"""
