import httpx

def main():
    url = "http://localhost:8080/requests"
    # what a webhook caller sends: store 'door opened' for identifier 'frontdoor'
    body = "TRIGGER_frontdoor door opened"
    print("Webhook body: ", body)
    resp = httpx.post(url, content=body)
    print("Server:", resp.status_code, resp.text)

if __name__ == "__main__":
    main()
