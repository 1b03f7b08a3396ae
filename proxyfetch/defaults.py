SOCKS5_DEFAULT_PORT = 1080

HTTP_DEFAULT_PORT = 80
HTTPS_DEFAULT_PORT = 443

STREAM_BUFSIZE = 2**22  # 4MB
STREAM_TCP_BUFSIZE = 2**12  # 4KB

LOG_FORMAT = '%(asctime)s %(name)s %(levelname)s %(message)s'
LOG_DATE_FORMAT = '%y-%m-%d %H:%M:%S'
