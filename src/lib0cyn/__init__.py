from lib0cyn.log import log, LogLevel
