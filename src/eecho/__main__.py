from eecho.main import eecho

eecho()
